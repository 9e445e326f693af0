"""
The MODEL layer contains pure data structures and document I/O.
It has NO knowledge of the GUI (Qt) or of when saves are triggered.
It deals with the document format and the live editing scene.
"""
