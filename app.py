"""Main Flask WSGI application hosting the MediFind backend."""

import logging

from logging_config import setup_logging
from settings import Settings
from views import create_app

setup_logging()
logger = logging.getLogger('medifind.app')

app, storage_strategy, cache_strategy, broadcaster = create_app(testing=False)

if __name__ == '__main__':
    logger.info('%s running on http://%s:%d', Settings.SERVICE_NAME,
                Settings.HOST, Settings.PORT)
    app.run(host=Settings.HOST, port=Settings.PORT, debug=Settings.DEBUG)
