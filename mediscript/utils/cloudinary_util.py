# /mediscript/utils/cloudinary_util.py
import logging
import os
import time

import cloudinary
import cloudinary.uploader
import cloudinary.utils

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {'image/jpeg', 'image/jpg', 'image/png', 'image/webp'}
ALLOWED_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'webp'}


class CloudinaryManager:
    """Uploads patient images to Cloudinary and builds derived delivery URLs.

    Upload methods never raise: they return a dict with 'success' and either
    'url'/'public_id' or 'error', so callers can carry on without the image.
    """

    def __init__(self, app=None, sleep=time.sleep):
        self.upload_preset = None
        self.max_image_size = 5 * 1024 * 1024
        self.max_retries = 3
        self.retry_delay = 1.0
        self.sleep = sleep
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize Cloudinary with app config."""
        cloudinary.config(
            cloud_name=app.config.get('CLOUDINARY_CLOUD_NAME'),
            api_key=app.config.get('CLOUDINARY_API_KEY'),
            api_secret=app.config.get('CLOUDINARY_API_SECRET'),
            secure=True
        )
        self.upload_preset = app.config.get('CLOUDINARY_UPLOAD_PRESET')
        self.max_image_size = app.config.get('MAX_IMAGE_SIZE', self.max_image_size)
        self.max_retries = app.config.get('IMAGE_UPLOAD_MAX_RETRIES', self.max_retries)
        self.retry_delay = app.config.get('IMAGE_UPLOAD_RETRY_DELAY', self.retry_delay)

    def validate_image(self, file):
        """
        Check an uploaded image before any network call is made.

        Args:
            file: werkzeug FileStorage (or any object with filename, mimetype and a stream)

        Returns:
            str or None: an error message, or None when the file is acceptable
        """
        if not file or not file.filename:
            return 'No file provided'

        if not self._is_allowed_image(file):
            return 'Please upload a JPG, PNG or WebP image'

        if not self._is_valid_file_size(file):
            return f'Image must be less than {self.max_image_size // (1024 * 1024)}MB'

        return None

    def upload_patient_image(self, file, folder):
        """
        Upload a single image to the given Cloudinary folder.

        Args:
            file: The file to upload
            folder: Target folder, e.g. 'medical_images/<doctor_id>'

        Returns:
            dict: Contains upload result with 'success', 'url', 'public_id' or 'error'
        """
        try:
            file.seek(0)
            upload_result = cloudinary.uploader.upload(
                file,
                folder=folder,
                upload_preset=self.upload_preset,
                resource_type='image'
            )
        except Exception as e:
            logger.warning("Cloudinary upload to '%s' failed: %s", folder, e)
            return {'success': False, 'error': 'Failed to upload image'}

        url = upload_result.get('secure_url')
        public_id = upload_result.get('public_id')
        if not url or not public_id:
            logger.warning("Cloudinary upload to '%s' returned no secure_url/public_id", folder)
            return {'success': False, 'error': 'Invalid response from image host'}

        return {'success': True, 'url': url, 'public_id': public_id}

    def upload_with_retry(self, file, folder, max_retries=None):
        """
        Upload with a bounded retry loop and linear backoff (attempt x delay).

        Returns:
            dict: the last upload result, successful or not, plus 'attempts'
        """
        max_retries = max_retries or self.max_retries
        result = {'success': False, 'error': 'Failed to upload image'}

        for attempt in range(1, max_retries + 1):
            logger.info("Attempt %d: uploading image to Cloudinary folder '%s'", attempt, folder)
            result = self.upload_patient_image(file, folder)
            if result['success']:
                result['attempts'] = attempt
                return result
            if attempt < max_retries:
                self.sleep(self.retry_delay * attempt)

        logger.error("All %d upload attempts to '%s' failed", max_retries, folder)
        result['attempts'] = max_retries
        return result

    def get_optimized_image_url(self, public_id, max_width=800):
        """Responsive delivery URL: bounded width, auto quality and format."""
        if not public_id:
            return ''
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            crop='limit',
            width=max_width,
            quality='auto',
            fetch_format='auto',
            secure=True
        )
        return url

    def get_thumbnail_url(self, public_id, size=200):
        """Square, face-aware thumbnail URL."""
        if not public_id:
            return ''
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            crop='thumb',
            width=size,
            height=size,
            gravity='face',
            secure=True
        )
        return url

    def _get_file_extension(self, filename):
        """Extract file extension from filename."""
        if not filename or '.' not in filename:
            return None
        return filename.rsplit('.', 1)[1].lower()

    def _is_allowed_image(self, file):
        mimetype = (getattr(file, 'mimetype', None) or '').lower()
        if mimetype:
            return mimetype in ALLOWED_IMAGE_TYPES
        return self._get_file_extension(file.filename) in ALLOWED_IMAGE_EXTENSIONS

    def _is_valid_file_size(self, file):
        file.seek(0, os.SEEK_END)
        file_size = file.tell()
        file.seek(0)  # Reset file pointer
        return file_size <= self.max_image_size

# Create a single instance
cloudinary_manager = CloudinaryManager()
