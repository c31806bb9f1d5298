"""
Tests for input validation and upload checks
"""
from datetime import datetime

import pytest

from services.errors import ValidationError
from validators import (
    BOOL,
    ID,
    INT,
    MB,
    NUMBER,
    OBJECT,
    STRING,
    check_file_signature,
    get_extension,
    is_suspicious_filename,
    list_of,
    parse_datetime,
    parse_int,
    require_fields,
    required,
    sanitize_filename,
    stored_filename,
    validate_choice,
    validate_email,
    validate_file_upload,
    validate_input,
    validate_password,
    validate_required_fields,
    validate_upload_metadata,
    validate_url,
)

PNG_BYTES = bytes.fromhex('89504E470D0A1A0A') + b'\x00' * 64
PDF_BYTES = b'%PDF-1.4\n' + b'0' * 64
JPEG_BYTES = bytes.fromhex('FFD8FFE0') + b'\x00' * 64
WEBP_BYTES = b'RIFF\x00\x00\x00\x00WEBPVP8 ' + b'\x00' * 64
DOCX_BYTES = bytes.fromhex('504B0304') + b'\x00' * 64
EXE_BYTES = bytes.fromhex('4D5A9000') + b'\x00' * 64


@pytest.mark.unit
class TestRequiredFields:
    """Tests for required field validation"""

    def test_validate_all_fields_present(self):
        """Test validation passes when all required fields are present"""
        data = {'name': 'Client', 'email': 'client@example.com'}
        is_valid, error = validate_required_fields(data, ['name', 'email'])
        assert is_valid is True
        assert error is None

    def test_validate_missing_field(self):
        """Test validation fails when a required field is missing"""
        is_valid, error = validate_required_fields({'name': 'Client'}, ['name', 'email'])
        assert is_valid is False
        assert 'email' in error

    def test_validate_empty_and_none_fields(self):
        """Test empty strings and None count as missing"""
        is_valid, error = validate_required_fields({'name': '', 'email': None}, ['name', 'email'])
        assert is_valid is False
        assert 'name' in error and 'email' in error

    def test_require_fields_returns_payload(self):
        """Test require_fields hands back the payload when valid"""
        data = {'projectId': 'p1'}
        assert require_fields(data, ['projectId']) is data

    def test_require_fields_rejects_non_object(self):
        """Test require_fields rejects a list body"""
        with pytest.raises(ValidationError, match='JSON object'):
            require_fields(['projectId'], ['projectId'])

    def test_require_fields_raises_on_missing(self):
        """Test require_fields raises a 400 error for missing fields"""
        with pytest.raises(ValidationError) as exc_info:
            require_fields({}, ['invoiceId'])
        assert exc_info.value.status_code == 400
        assert 'invoiceId' in exc_info.value.message


@pytest.mark.unit
class TestEmailValidation:
    """Tests for email validation"""

    def test_valid_email(self):
        """Test valid email passes"""
        is_valid, error = validate_email('client@example.com')
        assert is_valid is True
        assert error is None

    def test_valid_email_with_subdomain(self):
        """Test valid email with subdomain passes"""
        is_valid, _ = validate_email('user@mail.example.co.id')
        assert is_valid is True

    @pytest.mark.parametrize('email', ['invalidemail.com', 'test@', 'a b@example.com', ''])
    def test_invalid_emails(self, email):
        """Test malformed addresses fail"""
        is_valid, error = validate_email(email)
        assert is_valid is False
        assert error

    def test_invalid_email_too_long(self):
        """Test email that's too long fails"""
        is_valid, error = validate_email('a' * 250 + '@example.com')
        assert is_valid is False
        assert 'too long' in error


@pytest.mark.unit
class TestPasswordValidation:
    """Tests for password rules"""

    def test_signup_password_needs_eight_characters(self):
        """Test signup passwords shorter than 8 characters fail"""
        is_valid, error = validate_password('short12')
        assert is_valid is False
        assert '8' in error

    def test_reset_password_allows_six_characters(self):
        """Test the reset minimum can be lowered to 6"""
        is_valid, _ = validate_password('abc123', min_length=6)
        assert is_valid is True

    def test_missing_password(self):
        """Test None fails"""
        is_valid, error = validate_password(None)
        assert is_valid is False
        assert error == 'Password is required'


@pytest.mark.unit
class TestURLValidation:
    """Tests for URL validation"""

    def test_valid_urls(self):
        """Test HTTP and HTTPS URLs with paths pass"""
        assert validate_url('http://example.com')[0] is True
        assert validate_url('https://example.com/path/to/page')[0] is True

    def test_invalid_url_no_protocol(self):
        """Test URL without protocol fails"""
        assert validate_url('example.com')[0] is False

    def test_invalid_url_too_long(self):
        """Test URL that's too long fails"""
        assert validate_url('https://example.com/' + 'a' * 2100)[0] is False


@pytest.mark.unit
class TestParsing:
    """Tests for choice, integer and date coercion"""

    def test_validate_choice_accepts_allowed_value(self):
        """Test allowed values are returned"""
        assert validate_choice('PAID', ['PENDING', 'PAID'], 'status') == 'PAID'

    def test_validate_choice_rejects_unknown_value(self):
        """Test unknown values list the allowed ones"""
        with pytest.raises(ValidationError, match='PENDING, PAID'):
            validate_choice('LOST', ['PENDING', 'PAID'], 'status')

    def test_parse_int_default_and_bounds(self):
        """Test parse_int default, coercion and bounds"""
        assert parse_int(None, 'limit', default=10) == 10
        assert parse_int('5', 'limit') == 5
        with pytest.raises(ValidationError, match='at most 50'):
            parse_int('51', 'limit', max_value=50)
        with pytest.raises(ValidationError, match='at least 1'):
            parse_int(0, 'limit', min_value=1)

    def test_parse_int_rejects_text(self):
        """Test non-numeric text raises"""
        with pytest.raises(ValidationError, match='must be an integer'):
            parse_int('ten', 'limit')

    def test_parse_datetime_converts_to_naive_utc(self):
        """Test an offset timestamp becomes naive UTC"""
        parsed = parse_datetime('2026-03-01T10:00:00+07:00', 'dueDate')
        assert parsed == datetime(2026, 3, 1, 3, 0, 0)
        assert parsed.tzinfo is None

    def test_parse_datetime_passthrough_and_errors(self):
        """Test empty values, datetime inputs and garbage"""
        now = datetime(2026, 1, 1)
        assert parse_datetime('', 'dueDate') is None
        assert parse_datetime(now, 'dueDate') is now
        with pytest.raises(ValidationError, match='valid date'):
            parse_datetime('not a date', 'dueDate')


@pytest.mark.unit
class TestInputSchemas:
    """Tests for RPC input validation"""

    SCHEMA = {
        'id': required(ID),
        'progress': INT,
        'budget': NUMBER,
        'notify': BOOL,
        'title': STRING,
        'items': list_of(OBJECT),
    }

    def test_valid_input_is_coerced(self):
        """Test declared fields come back converted"""
        data = validate_input({
            'id': ' abc ', 'progress': '40', 'budget': 1500, 'notify': 'true',
            'title': 'Launch', 'items': [{'description': 'Design'}]
        }, self.SCHEMA)
        assert data == {
            'id': 'abc', 'progress': 40, 'budget': 1500.0, 'notify': True,
            'title': 'Launch', 'items': [{'description': 'Design'}]
        }

    def test_absent_optional_fields_stay_absent(self):
        """Test optional fields are not invented"""
        assert validate_input({'id': 'abc'}, self.SCHEMA) == {'id': 'abc'}

    def test_required_field(self):
        """Test required fields must be present and non-blank"""
        with pytest.raises(ValidationError, match='id is required'):
            validate_input({'title': 'x'}, self.SCHEMA)
        with pytest.raises(ValidationError, match='id is required'):
            validate_input({'id': '   '}, self.SCHEMA)

    @pytest.mark.parametrize('data, message', [
        ({'id': {'x': 1}}, 'id must be a string'),
        ({'id': 'a' * 200}, 'at most 128'),
        ({'id': 'a', 'progress': 4.5}, 'progress must be an integer'),
        ({'id': 'a', 'progress': True}, 'progress must be an integer'),
        ({'id': 'a', 'budget': 'lots'}, 'budget must be a number'),
        ({'id': 'a', 'notify': 1}, 'notify must be true or false'),
        ({'id': 'a', 'title': ['x']}, 'title must be a string'),
        ({'id': 'a', 'items': {'description': 'x'}}, 'items must be a list'),
        ({'id': 'a', 'items': ['Design']}, r'items\[0\] must be an object'),
    ])
    def test_wrong_kinds_rejected(self, data, message):
        """Test each kind rejects values of the wrong shape"""
        with pytest.raises(ValidationError, match=message):
            validate_input(data, self.SCHEMA)

    def test_undeclared_fields(self):
        """Test undeclared ids must be strings and other fields must be plain"""
        assert validate_input({'projectId': 'p1', 'tags': ['a', 'b'], 'note': None}) == {
            'projectId': 'p1', 'tags': ['a', 'b'], 'note': None
        }
        with pytest.raises(ValidationError, match='projectId must be a string'):
            validate_input({'projectId': ['p1']})
        with pytest.raises(ValidationError, match='filters has an unsupported type'):
            validate_input({'filters': {'status': 'PAID'}})

    def test_non_object_input(self):
        """Test None becomes an empty object and lists are rejected"""
        assert validate_input(None) == {}
        with pytest.raises(ValidationError, match='JSON object'):
            validate_input([1, 2])


@pytest.mark.unit
class TestFilenameChecks:
    """Tests for filename sanitization and screening"""

    def test_sanitize_normal_filename(self):
        """Test normal filename is preserved"""
        assert sanitize_filename('brief.pdf') == 'brief.pdf'

    def test_sanitize_removes_path_traversal(self):
        """Test path traversal is removed"""
        result = sanitize_filename('../../../etc/passwd')
        assert '..' not in result
        assert '/' not in result

    def test_sanitize_empty_filename(self):
        """Test empty filename gets default name"""
        assert sanitize_filename('') == 'file'

    def test_get_extension(self):
        """Test extensions are lower-cased and optional"""
        assert get_extension('LOGO.PNG') == 'png'
        assert get_extension('README') == ''

    @pytest.mark.parametrize('filename', [
        'setup.exe', 'deploy.sh', 'index.php', '../secret.png',
        '<script>.png', 'javascript:alert(1)', 'data:text/html', 'what?.png',
    ])
    def test_suspicious_filenames(self, filename):
        """Test executables, scripts and traversal names are flagged"""
        assert is_suspicious_filename(filename) is True

    def test_plain_filename_is_not_suspicious(self):
        """Test ordinary names pass"""
        assert is_suspicious_filename('company-logo.png') is False


@pytest.mark.unit
class TestFileSignature:
    """Tests for magic byte checks"""

    def test_matching_signatures_pass(self):
        """Test content matching its declared type passes"""
        assert check_file_signature(PNG_BYTES, 'image/png') == (True, None)
        assert check_file_signature(PDF_BYTES, 'application/pdf') == (True, None)
        assert check_file_signature(WEBP_BYTES, 'image/webp') == (True, None)

    def test_mismatched_signature_fails(self):
        """Test a PDF declared as PNG is rejected"""
        is_valid, error = check_file_signature(PDF_BYTES, 'image/png')
        assert is_valid is False
        assert 'does not match' in error

    def test_executable_is_blocked(self):
        """Test PE executables are refused whatever the declared type"""
        is_valid, error = check_file_signature(EXE_BYTES, 'text/plain')
        assert is_valid is False
        assert error == 'File content is not allowed'

    def test_zip_allowed_only_for_office_documents(self):
        """Test zip containers pass as docx but not as plain text"""
        docx = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
        assert check_file_signature(DOCX_BYTES, docx)[0] is True
        assert check_file_signature(DOCX_BYTES, 'text/plain')[0] is False

    def test_riff_without_webp_marker_fails(self):
        """Test a RIFF file that is not WEBP fails"""
        wav = b'RIFF\x00\x00\x00\x00WAVEfmt ' + b'\x00' * 32
        assert check_file_signature(wav, 'image/webp')[0] is False

    def test_empty_content_fails(self):
        """Test empty files are rejected"""
        assert check_file_signature(b'', 'image/png') == (False, 'File is empty')


@pytest.mark.unit
class TestFileUploadValidation:
    """Tests for the full upload validation pipeline"""

    def test_valid_portfolio_image(self):
        """Test a real PNG passes as a portfolio upload"""
        is_valid, error, safe_name = validate_file_upload('logo.png', PNG_BYTES, 'image/png', 'portfolio')
        assert is_valid is True
        assert error is None
        assert safe_name == 'logo.png'

    def test_declared_type_parameters_are_ignored(self):
        """Test charset suffixes on the declared type are stripped"""
        is_valid, _, _ = validate_file_upload('notes.txt', b'hello', 'text/plain; charset=utf-8', 'attachment')
        assert is_valid is True

    def test_document_not_allowed_for_profile(self):
        """Test profile uploads accept images only"""
        is_valid, error, _ = validate_file_upload('brief.pdf', PDF_BYTES, 'application/pdf', 'profile')
        assert is_valid is False
        assert 'not allowed' in error

    def test_non_ascii_filename_keeps_its_extension(self):
        """Test the extension check uses the client's name, not the sanitized one"""
        is_valid, error, safe_name = validate_file_upload('文件.png', PNG_BYTES, 'image/png', 'portfolio')
        assert is_valid is True
        assert error is None
        assert safe_name == 'file.png'
        assert validate_upload_metadata('Übersicht.PDF', 'application/pdf', 1024, 'attachment') == (True, None)

    def test_stored_filename(self):
        """Test stored names are sanitized with the checked extension"""
        assert stored_filename('../../etc/logo.PNG', 'png') == 'etc_logo.png'
        assert stored_filename('my report.pdf', 'pdf') == 'my_report.pdf'
        assert stored_filename('README', '') == 'README'

    def test_extension_must_match_type(self):
        """Test a .jpg name with a PNG type is rejected"""
        is_valid, error, _ = validate_file_upload('logo.jpg', PNG_BYTES, 'image/png', 'portfolio')
        assert is_valid is False
        assert error == 'File extension does not match file type'

    def test_magic_byte_mismatch_rejected(self):
        """Test a JPEG body behind a PNG name and type is rejected"""
        is_valid, error, _ = validate_file_upload('logo.png', JPEG_BYTES, 'image/png', 'portfolio')
        assert is_valid is False
        assert 'does not match' in error

    def test_size_limit_depends_on_upload_type(self):
        """Test profile images cap at 5MB while attachments allow 10MB"""
        big = PNG_BYTES + b'\x00' * (6 * MB)
        assert validate_file_upload('me.png', big, 'image/png', 'profile')[0] is False
        assert validate_file_upload('me.png', big, 'image/png', 'attachment')[0] is True

    def test_suspicious_name_rejected(self, sample_file_data):
        """Test traversal names never reach the type checks"""
        is_valid, error, _ = validate_file_upload(
            sample_file_data['path_traversal_name'], PNG_BYTES, 'image/png')
        assert is_valid is False
        assert error == 'Filename is not allowed'

    def test_unknown_upload_type(self):
        """Test an unknown upload type is reported"""
        is_valid, error, _ = validate_file_upload('logo.png', PNG_BYTES, 'image/png', 'avatar')
        assert is_valid is False
        assert 'Unknown upload type' in error

    def test_missing_file(self):
        """Test an empty filename means no file"""
        assert validate_file_upload('', PNG_BYTES, 'image/png') == (False, 'No file provided', None)


@pytest.mark.unit
class TestUploadMetadata:
    """Tests for presigned upload metadata checks"""

    def test_valid_metadata(self):
        """Test valid metadata passes"""
        assert validate_upload_metadata('shot.webp', 'image/webp', 2 * MB, 'portfolio') == (True, None)

    def test_oversized_metadata(self):
        """Test sizes above the type limit fail"""
        is_valid, error = validate_upload_metadata('shot.png', 'image/png', 9 * MB, 'portfolio')
        assert is_valid is False
        assert '8MB' in error

    def test_zero_size_metadata(self):
        """Test zero-byte declarations fail"""
        assert validate_upload_metadata('shot.png', 'image/png', 0, 'portfolio')[0] is False

    def test_disallowed_type_metadata(self, sample_file_data):
        """Test executables are refused up front"""
        is_valid, error = validate_upload_metadata(
            sample_file_data['invalid_name'], 'application/octet-stream', 100)
        assert is_valid is False
        assert error == 'Filename is not allowed'
