"""枚举定义：约束节点类型的可选值。"""

from enum import Enum


class NodeKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"
