from fileprompt.main import cli

cli()
