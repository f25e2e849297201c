from dotenv import load_dotenv
import os

# Load environment variables from .env file
load_dotenv()

from prizeversity_app import create_app
from prizeversity_app.extensions import socketio

app = create_app()

if __name__ == '__main__':
    socketio.run(
        app,
        host=os.environ.get('HOST', '0.0.0.0'),
        port=int(os.environ.get('PORT', 5000)),
        debug=os.environ.get('FLASK_DEBUG', '').lower() in ('1', 'true', 'yes'),
        allow_unsafe_werkzeug=True,
    )
