import os
import logging
from app import create_app
from utils.config_validator import check_production_readiness

logger = logging.getLogger(__name__)

# WSGI entry point: gunicorn main:app
app = create_app()

if os.environ.get('FLASK_ENV') == 'production':
    readiness = check_production_readiness()
    if not readiness['production_ready']:
        logger.warning(f"Starting fleet booking API with configuration issues: {readiness['issues']}")

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host=os.environ.get('HOST', '0.0.0.0'), port=port, debug=False)
