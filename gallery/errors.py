class GalleryError(Exception):
    """Base error; status_code is what the API answers with."""
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthError(GalleryError):
    status_code = 401


class ImageNotFound(GalleryError):
    status_code = 404


class ImageFetchError(GalleryError):
    status_code = 502


class ProviderError(GalleryError):
    """An AI provider call failed or returned something unusable."""
    status_code = 502


class AnalysisTimeout(ProviderError):
    status_code = 504


class AnalysisFailed(GalleryError):
    """Tagging could not be completed; the metadata row is left failed."""
    status_code = 500


class InvalidRequest(GalleryError):
    status_code = 400
