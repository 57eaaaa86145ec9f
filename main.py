from flask import Flask, request, jsonify
import os
import logging
from pathlib import Path
from tempfile import NamedTemporaryFile
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from werkzeug.utils import secure_filename

# Load environment variables before anything reads them
load_dotenv()

from leasecheck.services.analysis_orchestrator import analyze_contract as run_analysis
from leasecheck.services.errors import AnalysisFailed, ConfigurationError
from leasecheck.services.text_extractor import extract_text, SUPPORTED_EXTENSIONS

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB

app = Flask(__name__)
app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-key')
app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE


def _error(message: str, status: int):
    return jsonify({'success': False, 'message': message}), status


@app.errorhandler(RequestEntityTooLarge)
def upload_too_large(e):
    return _error('File is too large. The maximum upload size is 10MB.', 413)


@app.route('/health')
def health():
    return jsonify({'status': 'ok'})


def _text_from_upload(file) -> str:
    """Save an uploaded file to a temporary path and extract its text."""
    filename = secure_filename(file.filename or '')
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise ValueError('Only PDF, DOCX and TXT files are supported')

    temp_file_path = None
    try:
        with NamedTemporaryFile(delete=False, suffix=suffix) as temp_file:
            file.save(temp_file)
            temp_file_path = temp_file.name

        logger.info(f"Extracting text from upload: {filename}")
        return extract_text(Path(temp_file_path))
    finally:
        # Uploaded contracts are never kept on disk
        if temp_file_path:
            try:
                Path(temp_file_path).unlink()
            except OSError as cleanup_error:
                logger.warning(f"Failed to clean up temporary file: {cleanup_error}")


@app.route('/api/analyze', methods=['POST'])
def analyze_contract_route():
    """Analyze an uploaded tenancy agreement or raw contract text."""
    try:
        if 'contractFile' in request.files:
            file = request.files['contractFile']
            if not file.filename:
                return _error('No file selected', 400)
            contract_text = _text_from_upload(file)
        else:
            payload = request.get_json(silent=True)
            contract_text = payload.get('text') if isinstance(payload, dict) else None
            if not isinstance(contract_text, str) or not contract_text.strip():
                return _error('Upload a contract file or provide contract text', 400)

        logger.info(f"Running analysis on {len(contract_text)} characters")
        result = run_analysis(contract_text)

        return jsonify({'success': True, 'result': result.to_dict()})

    except ValueError as e:
        return _error(str(e), 400)

    except RuntimeError as e:
        logger.warning(f"Could not process uploaded document: {e}")
        return _error(f'Could not process the document. {e}', 422)

    except ConfigurationError as e:
        logger.error(f"Analysis service is not configured: {e}")
        return _error(str(e), 500)

    except AnalysisFailed as e:
        logger.error(f"Analysis failed on both paths: {e.cause!r}")
        return _error(str(e), 503)

    except HTTPException:
        raise

    except Exception as e:
        logger.exception(f"Unexpected error in analyze_contract: {type(e).__name__}")
        return _error('Analysis failed; please try again.', 500)


if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
