from app.adminkit import create_app

app = create_app()
