"""Image loading for color sampling and compositing"""

from kdp_cover.assets.loader import AssetLoader, ImageSource, decode_image, to_data_uri

__all__ = ["AssetLoader", "ImageSource", "decode_image", "to_data_uri"]
