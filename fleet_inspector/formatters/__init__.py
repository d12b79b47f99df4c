from .bundle_response import BundleResponseFormatter, images_to_text

__all__ = ["BundleResponseFormatter", "images_to_text"]
