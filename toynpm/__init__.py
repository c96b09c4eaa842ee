"""toy-npm - 极简 npm 包管理客户端"""

__version__ = "0.1.0"
