from cce_operator.cli import cli

cli()
