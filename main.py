from accessibility_scanner.main import create_app

app = create_app()
