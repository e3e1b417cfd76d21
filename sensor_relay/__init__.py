"""
Sensor Relay - 데이터베이스 폴링 결과를 웹소켓 구독자에게 푸시
"""
__version__ = "1.0.0"
