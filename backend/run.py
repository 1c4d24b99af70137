import os
from arena import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets
    socketio.run(app, host='0.0.0.0', port=int(os.environ.get('PORT', '3000')), debug=os.environ.get('FLASK_DEBUG') == '1')
