from app.gestio import create_app

app = create_app()
