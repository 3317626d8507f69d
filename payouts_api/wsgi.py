import os

from payouts_api import create_app

app = create_app(os.getenv("PAYOUTS_CONFIG"))
