"""检测系统异常定义"""


class DrowsinessError(Exception):
    """检测系统异常基类"""


class NoFrameSource(DrowsinessError):
    """视频帧来源不可用（摄像头未连接或无法打开）"""


class ModelUnavailable(DrowsinessError):
    """人脸关键点模型无法构建"""


class ActuatorFailure(DrowsinessError):
    """报警器无法切换状态"""


class ConfigError(DrowsinessError, ValueError):
    """配置项类型或取值不合法"""
