"""cmsportal: blog CMS and customer document portal"""

__version__ = "0.1.0"
