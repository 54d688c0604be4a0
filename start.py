import os
import sys

# Make the billing_admin package importable when run from a checkout
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
sys.path.insert(0, BASE_DIR)

from billing_admin.app import create_app

if __name__ == '__main__':
    app = create_app()

    # debug=False and use_reloader=False so the app is only started once
    app.run(
        debug=False,
        host='0.0.0.0',
        port=int(os.environ.get('PORT', 8080)),
        use_reloader=False,
        threaded=True
    )
