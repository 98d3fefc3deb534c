from pathlib import Path
import logging
import sys


ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from syllabus_app.config import settings
from syllabus_app.db import SessionLocal
from syllabus_app.services.file_storage_service import purge_stale_drafts


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')

db = SessionLocal()
try:
    purged = purge_stale_drafts(db)
finally:
    db.close()

print(f'Purged {purged} draft file(s) older than {settings.draft_ttl_hours}h.')
