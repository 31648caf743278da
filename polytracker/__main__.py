from polytracker.cli import cli

cli()
