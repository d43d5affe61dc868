"""Allow running the Execution OS CLI directly: python -m execos"""
from execos.cli.main import cli

if __name__ == "__main__":
    cli()
