from chatrelay.cli.main import app

app()
