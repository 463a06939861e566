"""
通知公告模块
"""
