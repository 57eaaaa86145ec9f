"""
Run the BC Lease Checker API with the Waitress WSGI server
"""
import os
from waitress import serve
from main import app

if __name__ == '__main__':
    port = int(os.getenv('PORT', '5000'))

    print("\n" + "="*70)
    print(f"Starting BC Lease Checker with Waitress on port {port}")
    print("="*70 + "\n")

    serve(app, host='0.0.0.0', port=port, threads=4)
