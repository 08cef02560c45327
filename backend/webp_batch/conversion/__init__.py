from .service import ConversionService, get_conversion_service
from .models import ConvertedImage, EncodeOptions

__all__ = ["ConversionService", "ConvertedImage", "EncodeOptions", "get_conversion_service"]
