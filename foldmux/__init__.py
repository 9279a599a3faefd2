"""
foldmux -- multiplexed, folding terminal view of concurrent program output.

Each source (a spawned program or standard input) is parsed line by line into
a tree of titled regions delimited by begin/end patterns, and all sources are
drawn together so that they always fit the terminal's rows.

Modules:
    - patterns: begin/end pattern pairs and title extraction
    - content: per-source region tree built from raw lines
    - layout: tree to width-fitted display lines, with run minimization
    - allocate: spreading the terminal rows over the sources
    - broker: one reader task per stream, fanned into one queue
    - scheduler: the consumer loop and its rate-limited redraws
    - render: drawing frames with rich
    - cli / config: command line entry point and settings
"""

__version__ = "0.3.0"
