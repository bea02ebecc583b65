from intunegraph.app.cli import app

if __name__ == "__main__":
    app()
