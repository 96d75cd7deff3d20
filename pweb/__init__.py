"""
A static file server that reverse-proxies selected paths to upstream services.
"""

from .server import Server
from .handler import RequestHandler
from .dispatcher import Dispatcher
from .models import HTTPRequest, HTTPResponse
from .config import ServerConfig
from .options import Options

__all__ = ['Server', 'RequestHandler', 'Dispatcher', 'HTTPRequest', 'HTTPResponse',
           'ServerConfig', 'Options']
