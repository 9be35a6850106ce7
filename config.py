# config.py
"""
Configurações da aplicação lidas do ambiente (ou de um arquivo .env).
"""

import os

from dotenv import load_dotenv

load_dotenv()

# --- Firebase ---
# Caminho para o JSON da service account. Sem ele, usa as credenciais padrão do ambiente (Cloud Run).
FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS")
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# --- Agenda ---
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Sao_Paulo")
# 0 = domingo, 1 = segunda
AGENDA_WEEK_STARTS_ON = int(os.getenv("AGENDA_WEEK_STARTS_ON", "0"))
DEFAULT_APPOINTMENT_DURATION = int(os.getenv("DEFAULT_APPOINTMENT_DURATION", "30"))
WORKING_HOURS_START = os.getenv("WORKING_HOURS_START", "08:00")
WORKING_HOURS_END = os.getenv("WORKING_HOURS_END", "20:00")

# --- API ---
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
