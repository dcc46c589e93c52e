from panelflow import create_app

app = create_app()

# gunicorn -w 4 wsgi:app
# The project lock is per process. Across workers the unique (project_id, sort_order)
# constraint rejects the losing write, which is reported as a 409.
