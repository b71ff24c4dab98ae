import os

from MySQLdb.constants import CLIENT


class Config:
    MYSQL_USER = os.getenv('MYSQL_USER', 'root')
    MYSQL_PASSWORD = os.getenv('MYSQL_PASSWORD', 'root123')
    MYSQL_HOST = os.getenv('MYSQL_HOST', 'localhost')
    MYSQL_DB = os.getenv('MYSQL_DB', 'CashAndCarryMart')
    MYSQL_PORT = int(os.getenv('MYSQL_PORT', 3306))
    MYSQL_CURSORCLASS = 'DictCursor'
    MYSQL_AUTOCOMMIT = True
    # The console endpoint accepts scripts with several statements.
    MYSQL_CUSTOM_OPTIONS = {'client_flag': CLIENT.MULTI_STATEMENTS}
    PORT = int(os.getenv('PORT', 5000))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    PRODUCT_LIST_DEFAULT_LIMIT = int(os.getenv('PRODUCT_LIST_DEFAULT_LIMIT', 50))
    PRODUCT_LIST_MAX_LIMIT = int(os.getenv('PRODUCT_LIST_MAX_LIMIT', 200))
