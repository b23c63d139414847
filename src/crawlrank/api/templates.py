from pathlib import Path

from fastapi.templating import Jinja2Templates

# src/crawlrank/api/templates.py -> src/crawlrank/templates
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
