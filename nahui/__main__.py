from nahui.main import cli

cli()
