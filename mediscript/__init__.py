import os
from flask import Flask, jsonify
from mediscript.extensions import db, bcrypt, migrate, jwt, limiter, cors
from mediscript.utils.encryption_util import encryptor
from mediscript.utils.cloudinary_util import cloudinary_manager
from mediscript.utils.gemini_util import gemini_client
from mediscript.utils.error_handlers import register_error_handlers
from mediscript.commands import register_commands
from config import config

__version__ = '1.0.0'


def create_app(config_name=None):
    app = Flask(__name__)
    config_name = config_name or os.getenv('FLASK_CONFIG', 'default')
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    cors.init_app(app, origins=app.config['ALLOWED_ORIGINS'], supports_credentials=True)

    # Initialize app with config (logging, audit logger)
    config_class.init_app(app)

    # Initialize custom utilities
    encryptor.init_app(app)
    cloudinary_manager.init_app(app)
    gemini_client.init_app(app)

    # Register blueprints
    from mediscript.api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    # Register error handlers and commands
    register_error_handlers(app)
    register_commands(app)

    # JWT token blocklist checker
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        from mediscript.models.system_models import RevokedToken
        return RevokedToken.is_revoked(jwt_payload['jti'])

    @app.route('/health')
    def health():
        return jsonify({'status': 'healthy', 'service': 'MediScript API', 'version': __version__})

    return app
