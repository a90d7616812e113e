from evos.cli.main import app

app()
