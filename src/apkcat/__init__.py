"""apkcat: local catalog manager for APK repositories."""

__version__ = "0.1.0"
