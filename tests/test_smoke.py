def test_imports():
    import importlib
    pkg = importlib.import_module("postaltracker")
    assert hasattr(pkg, "__version__")

    cli = importlib.import_module("postaltracker.cli")
    assert hasattr(cli, "main")

    server = importlib.import_module("postaltracker.server")
    assert hasattr(server, "create_app")
