"""Sample documents used by the demo and the tests"""
