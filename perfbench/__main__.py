from .benchmarks.main import cli

cli()
