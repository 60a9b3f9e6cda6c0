"""
Services package: task ordering engine, position store and the board ordering service.
"""
