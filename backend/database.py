"""
Learn2Go Database Connection - MySQL
"""
import mysql.connector
from mysql.connector import pooling
from config import settings
from contextlib import contextmanager
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

db_config = {
    "host": settings.DB_HOST,
    "port": settings.DB_PORT,
    "user": settings.DB_USER,
    "password": settings.DB_PASSWORD,
    "database": settings.DB_NAME,
    "charset": "utf8mb4",
    "collation": "utf8mb4_unicode_ci",
    "autocommit": False
}

# Created on first use so the app can start before the database is reachable
connection_pool = None


SCHEMA = [
    """CREATE TABLE IF NOT EXISTS users (
        id INT AUTO_INCREMENT PRIMARY KEY,
        email VARCHAR(255) NOT NULL UNIQUE,
        username VARCHAR(100) NOT NULL UNIQUE,
        password_hash VARCHAR(255) NOT NULL,
        role VARCHAR(20) NOT NULL DEFAULT 'student',
        language VARCHAR(8) NOT NULL DEFAULT 'en',
        country VARCHAR(8) NOT NULL DEFAULT 'US',
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at DATETIME NOT NULL,
        last_active DATETIME NULL,
        last_lesson_completed VARCHAR(255) NULL
    )""",
    """CREATE TABLE IF NOT EXISTS lessons (
        id INT AUTO_INCREMENT PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        description TEXT,
        content TEXT,
        level INT NOT NULL DEFAULT 1,
        language VARCHAR(8) NOT NULL DEFAULT 'en',
        country VARCHAR(8) NOT NULL DEFAULT 'US',
        category VARCHAR(64) NULL,
        tags JSON NULL,
        created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS quiz_questions (
        id INT AUTO_INCREMENT PRIMARY KEY,
        lesson_id INT NOT NULL,
        position INT NOT NULL DEFAULT 0,
        question TEXT NOT NULL,
        options JSON NOT NULL,
        correct_answer INT NOT NULL,
        explanation TEXT,
        FOREIGN KEY (lesson_id) REFERENCES lessons(id) ON DELETE CASCADE
    )""",
    """CREATE TABLE IF NOT EXISTS user_progress (
        id INT AUTO_INCREMENT PRIMARY KEY,
        user_id INT NOT NULL,
        lesson_id INT NOT NULL,
        completed BOOLEAN NOT NULL DEFAULT FALSE,
        score INT NOT NULL DEFAULT 0,
        completed_at DATETIME NOT NULL,
        UNIQUE KEY uq_user_lesson (user_id, lesson_id),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY (lesson_id) REFERENCES lessons(id) ON DELETE CASCADE
    )""",
    """CREATE TABLE IF NOT EXISTS user_activity_logs (
        id INT AUTO_INCREMENT PRIMARY KEY,
        user_id INT NOT NULL,
        activity_type VARCHAR(32) NOT NULL,
        activity_details JSON NULL,
        timestamp DATETIME NOT NULL,
        duration_seconds INT NULL,
        score INT NULL,
        page_url VARCHAR(255) NULL,
        INDEX idx_activity_user_time (user_id, timestamp),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )""",
    """CREATE TABLE IF NOT EXISTS system_settings (
        setting_key VARCHAR(64) PRIMARY KEY,
        setting_value TEXT NULL,
        updated_at DATETIME NOT NULL
    )""",
]


def get_pool():
    """Return the shared connection pool, creating it on first call"""
    global connection_pool
    if connection_pool is None:
        connection_pool = pooling.MySQLConnectionPool(
            pool_name="learn2go_pool",
            pool_size=settings.DB_POOL_SIZE,
            pool_reset_session=True,
            **db_config
        )
        logger.info("Database connection pool created successfully")
    return connection_pool


@contextmanager
def get_db_connection():
    """Get a database connection from the pool"""
    connection = None
    try:
        connection = get_pool().get_connection()
        yield connection
        connection.commit()
    except Exception as e:
        if connection:
            connection.rollback()
        logger.error(f"Database error: {e}")
        raise
    finally:
        if connection:
            connection.close()


@contextmanager
def get_db_cursor(dictionary=True):
    """Get a database cursor"""
    with get_db_connection() as connection:
        cursor = connection.cursor(dictionary=dictionary)
        try:
            yield cursor
        finally:
            cursor.close()


def init_database():
    """Initialize database - create it and its tables if they don't exist"""
    try:
        conn = mysql.connector.connect(
            host=settings.DB_HOST,
            port=settings.DB_PORT,
            user=settings.DB_USER,
            password=settings.DB_PASSWORD
        )
        cursor = conn.cursor()
        cursor.execute(f"CREATE DATABASE IF NOT EXISTS {settings.DB_NAME} CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
        cursor.close()
        conn.close()

        with get_db_cursor() as cursor:
            for statement in SCHEMA:
                cursor.execute(statement)
        logger.info(f"Database '{settings.DB_NAME}' ready")
        return True
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        return False
