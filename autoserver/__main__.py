from autoserver.cli import cli

cli()
