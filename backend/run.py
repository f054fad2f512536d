import os

from dailyrank import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Scheduler only runs in the serving process, not in CLI invocations
    app.extensions['cleanup_scheduler'].start()
    socketio.run(app, host='0.0.0.0', port=int(os.environ.get('PORT', '80')),
                 allow_unsafe_werkzeug=True)
