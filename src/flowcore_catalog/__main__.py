from flowcore_catalog.apps.main import run

run()
