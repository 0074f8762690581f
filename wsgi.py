import os

from dotenv import load_dotenv

# Load environment variables from .env next to this file before reading config
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env'))

from app import create_app

application = app = create_app()
