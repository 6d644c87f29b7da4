"""
Point d'entrée serverless (Vercel / AWS Lambda) de l'API clé-valeur.
"""
import logging

from mangum import Mangum

from artgallery.config import Settings
from artgallery.main import create_app

settings = Settings.from_env()
logging.basicConfig(level=settings.log_level)

app = create_app(settings)

# Handler pour Vercel
handler = Mangum(app, lifespan="off")
