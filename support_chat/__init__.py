"""Support Chat 顶层包。

该包提供客服聊天组件的后端与会话客户端实现，
包括配置加载、领域模型、消息存储、Provider 适配、
历史窗口构建、回复生成、对话编排、HTTP 接口与挂件侧会话逻辑。
"""
