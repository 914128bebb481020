"""
Configuration file for pytest.

This file configures pytest to properly load environment variables
before any test module imports the package.
"""
import dotenv

# Load environment variables from .env file
dotenv.load_dotenv()
