from lloms.main import app

app()
