class ServiceError(Exception):
    description = "An unknown error occurred."

    def __str__(self) -> str:
        return self.description


class ApiKeyMissing(ServiceError):
    description = "API Key is missing."


class ImageConversionFailed(ServiceError):
    description = "Failed to convert image to data."


class InvalidResponseStructure(ServiceError):
    description = "Received invalid response structure from API."


class ApiError(ServiceError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def description(self) -> str:
        return f"API error: {self.message}"


class _WrappedError(ServiceError):
    prefix = ""

    def __init__(self, error: BaseException):
        super().__init__(error)
        self.error = error

    @property
    def description(self) -> str:
        return f"{self.prefix}: {self.error}"


class RequestEncodingFailed(_WrappedError):
    prefix = "Failed to encode request"


class NetworkError(_WrappedError):
    prefix = "Network error"


class ResponseDecodingFailed(_WrappedError):
    prefix = "Failed to decode response"


class UnknownError(_WrappedError):
    prefix = "An unknown error occurred"
